import enum
from sqlalchemy import Boolean, String, Integer, Enum
from sqlalchemy.orm import Mapped, mapped_column
from ghgi.db.base import Base

class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    ENUMERATOR = "ENUMERATOR"

ROLE_LABELS = {
    Role.ADMIN: "Administrator",
    Role.ENUMERATOR: "Enumerator",
}

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(120))
    username: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))

    role: Mapped[Role] = mapped_column(Enum(Role), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def role_label(self) -> str:
        return ROLE_LABELS.get(self.role, self.role.value)
