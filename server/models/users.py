from sqlalchemy import Column, Text

from core.orm import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    name = Column(Text)
    email = Column(Text)
    role = Column(Text, nullable=False, server_default="user", default="user")
