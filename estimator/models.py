from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Boolean, JSON
from datetime import datetime
from .database import Base


# --- Catalog (read-only reference data, seeded on startup) ---

class Module(Base):
    """A trade that groups priceable elements."""
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    is_custom = Column(Boolean, default=False)


class Element(Base):
    """Priceable line item definition: material and labor formulas over parameter names."""
    __tablename__ = "elements"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    formula = Column(Text, default="")
    labor_formula = Column(Text, default="")
    markup = Column(Float, nullable=True)  # None → settings.DEFAULT_MARKUP_PCT


class Parameter(Base):
    __tablename__ = "parameters"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    value = Column(JSON, default=0)  # number or string
    type = Column(String, default="number")


class Template(Base):
    """Starting point for a proposal. Declared sets are stored as JSON snapshots."""
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    image = Column(String, default="")
    modules_json = Column(JSON, default=list)
    parameters_json = Column(JSON, default=list)
    template_elements_json = Column(JSON, default=list)


# --- Submissions ---

class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, nullable=True)
    name = Column(String, nullable=False)
    title = Column(String)
    description = Column(Text)
    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=False)
    client_phone = Column(String)
    client_address = Column(Text)
    image = Column(String)
    grand_total = Column(Float, default=0.0)
    payload_json = Column(JSON, nullable=False)  # ProposalPayload snapshot
    created_at = Column(DateTime, default=datetime.utcnow)
