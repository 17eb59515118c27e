from app.models.user import Role, User
from app.models.client import Client, Service
from app.models.job import Job, Resubmission
from app.models.timeline import TimelineEntry
from app.models.operation import CompanyDetails, PersonDetails, KycDocumentSet
from app.models.notification import Notification, NotificationRecipient
from app.models.payment import MonthlyPayment
from app.models.approval import ApprovalProcess

__all__ = [
    "Role", "User", "Client", "Service", "Job", "Resubmission", "TimelineEntry",
    "CompanyDetails", "PersonDetails", "KycDocumentSet", "Notification",
    "NotificationRecipient", "MonthlyPayment", "ApprovalProcess",
]
