# backend/reverie/models.py
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, JSON, Integer, Float, MetaData, UniqueConstraint


# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class Character(Base):
    """
    A player character. scene_x/scene_y locate the scene on the region grid,
    x/y is the position inside that scene.
    """
    __tablename__ = "characters"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True)

    scene_x: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    scene_y: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    x: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    y: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")


class Scene(Base):
    """Static scene definition. Spawners are stored as a JSON list of dicts."""
    __tablename__ = "scenes"
    __table_args__ = (UniqueConstraint("x", "y"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    region_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # Grid coordinates in the region map
    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)

    width: Mapped[int] = mapped_column(Integer, nullable=False, server_default="800")
    height: Mapped[int] = mapped_column(Integer, nullable=False, server_default="450")
    entrance_desc: Mapped[str] = mapped_column(String, nullable=False, server_default="")
    security: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    exits: Mapped[list] = mapped_column(JSON, default=list)
    spawners: Mapped[list] = mapped_column(JSON, default=list)
