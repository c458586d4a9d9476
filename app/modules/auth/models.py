from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from uuid import uuid4
from app.database.database import Base
from app.common.mixins import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    username = Column(String(50), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
