"""SQLAlchemy ORM models for stations, detections and their lookups."""

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from server.database import Base, UTCDateTime


class Organization(Base):
    """One row per tenant."""

    __tablename__ = "organizations"

    id   = Column(String(36),  primary_key=True)
    name = Column(String(255), nullable=False)

    stations = relationship("Station", back_populates="organization")


class UserProfile(Base):
    """Dashboard user; role is 'admin' or 'client'."""

    __tablename__ = "user_profiles"

    id              = Column(String(36),  primary_key=True)
    email           = Column(String(255), nullable=False, unique=True)
    role            = Column(String(20),  nullable=False, server_default="client")
    organization_id = Column(String(36),  ForeignKey("organizations.id"), nullable=True)


class Station(Base):
    """
    One row per physical sorting unit.

    The station id doubles as the device_id carried by its detections.
    """

    __tablename__ = "stations"

    id              = Column(String(36),  primary_key=True)
    name            = Column(String(255), nullable=True)
    location        = Column(String(255), nullable=True)
    status          = Column(String(20),  nullable=False, server_default="active")
    organization_id = Column(String(36),  ForeignKey("organizations.id"), nullable=True)

    organization = relationship("Organization", back_populates="stations")

    __table_args__ = (
        Index("idx_station_organization", "organization_id"),
    )


class Detection(Base):
    """
    One row per sorted item.

    Written by the detection pipeline and never updated. device_id is not a
    foreign key: stations may report before they are registered.
    """

    __tablename__ = "detections"

    id         = Column(Integer,      primary_key=True, autoincrement=True)
    category   = Column(String(20),   nullable=False)
    item       = Column(String(255),  nullable=True)
    created_at = Column(UTCDateTime,  nullable=False)
    device_id  = Column(String(36),   nullable=True)

    __table_args__ = (
        Index("idx_device_created", "device_id", "created_at"),
        Index("idx_created_at", "created_at"),
    )


class ImpactFactor(Base):
    """Savings credited for diverting one unit of an item."""

    __tablename__ = "impact_factors"

    item_key         = Column(String(255), primary_key=True)
    co2_saved_kg     = Column(Float,       nullable=False)
    water_saved_gal  = Column(Float,       nullable=False, server_default="0")
    energy_saved_kwh = Column(Float,       nullable=False, server_default="0")


TABLE_MODELS = {
    "organizations": Organization,
    "user_profiles": UserProfile,
    "stations": Station,
    "detections": Detection,
    "impact_factors": ImpactFactor,
}
