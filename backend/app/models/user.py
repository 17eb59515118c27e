from sqlalchemy import JSON, Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.database import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    permissions = Column(JSON, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role_id = Column(Text, ForeignKey("roles.id"))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    role = relationship("Role", back_populates="users")
