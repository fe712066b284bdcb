from models.base_model import Base, BaseModel
from sqlalchemy import Column, String


class User(BaseModel, Base):
    __tablename__ = "users"

    # Stored as given (case-sensitive); uniqueness enforced by the database
    email = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=False)
    password_hash = Column(String(255), nullable=False)

    def to_public(self) -> dict:
        """Profile projection safe to hand to clients."""
        return {"id": self.id, "email": self.email, "name": self.name}

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"
