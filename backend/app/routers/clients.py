from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.client import Client
from app.models.job import Job
from app.schemas.client import ClientDetailResponse, ClientResponse
from app.routers.jobs import job_to_response

router = APIRouter(
    prefix="/clients",
    tags=["clients"],
    dependencies=[Depends(get_current_user)],
)


def _client_to_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        name=client.name,
        gmail=client.gmail,
        starting_point=client.starting_point,
        job_count=len(client.jobs),
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


@router.get("", response_model=list[ClientResponse])
async def list_clients(db: Session = Depends(get_db)):
    clients = db.query(Client).order_by(Client.name).all()
    return [_client_to_response(c) for c in clients]


@router.get("/{email}", response_model=ClientDetailResponse)
async def get_client(email: str, db: Session = Depends(get_db)):
    client = db.query(Client).filter(Client.gmail == email).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    jobs = db.query(Job).filter(Job.client_id == client.id).order_by(Job.created_at.desc()).all()
    # Most recent engagement letter across the client's jobs.
    engagement_letter = next(
        (
            j.company_details.engagement_letters
            for j in jobs
            if j.company_details is not None and j.company_details.engagement_letters
        ),
        None,
    )
    return ClientDetailResponse(
        client=_client_to_response(client),
        jobs=[job_to_response(j) for j in jobs],
        engagement_letter=engagement_letter,
    )
