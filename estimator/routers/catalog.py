from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..database import get_db

router = APIRouter(prefix="/catalog", tags=["catalog"])

# Default reference data, seeded on first start. Formulas reference parameter names.
DEFAULT_PARAMETERS = [
    {"id": 1, "name": "room_length", "value": 12, "type": "linear feet"},
    {"id": 2, "name": "room_width", "value": 10, "type": "linear feet"},
    {"id": 3, "name": "wall_height", "value": 8, "type": "linear feet"},
    {"id": 4, "name": "floor_area", "value": 120, "type": "square feet"},
    {"id": 5, "name": "door_count", "value": 1, "type": "count"},
    {"id": 6, "name": "outlet_count", "value": 4, "type": "count"},
    {"id": 7, "name": "finish_grade", "value": "standard", "type": "text"},
]

DEFAULT_MODULES = [
    {"id": 1, "name": "Drywall", "description": "Hang, tape and finish gypsum board"},
    {"id": 2, "name": "Painting", "description": "Interior wall and trim paint"},
    {"id": 3, "name": "Flooring", "description": "LVP and tile floor coverings"},
    {"id": 4, "name": "Electrical", "description": "Device and fixture work"},
]

DEFAULT_ELEMENTS = [
    {
        "id": 1, "name": "Drywall hang & finish",
        "description": "1/2\" board, level 4 finish",
        "formula": "(room_length + room_width) * 2 * wall_height * 0.65",
        "labor_formula": "(room_length + room_width) * 2 * wall_height * 1.10",
        "markup": None,
    },
    {
        "id": 2, "name": "Wall paint (2 coats)",
        "description": "Primer plus two finish coats",
        "formula": "(room_length + room_width) * 2 * wall_height * 0.35",
        "labor_formula": "(room_length + room_width) * 2 * wall_height * 0.90",
        "markup": 15,
    },
    {
        "id": 3, "name": "Door & trim paint",
        "description": "Per door, both sides, with casing",
        "formula": "door_count * 18",
        "labor_formula": "door_count * 95",
        "markup": None,
    },
    {
        "id": 4, "name": "Luxury vinyl plank",
        "description": "Floating LVP with underlayment",
        "formula": "floor_area * 1.10 * 3.25",
        "labor_formula": "floor_area * 2.50",
        "markup": 12,
    },
    {
        "id": 5, "name": "Baseboard",
        "description": "MDF base, installed and caulked",
        "formula": "(room_length + room_width) * 2 * 1.45",
        "labor_formula": "(room_length + room_width) * 2 * 2.25",
        "markup": None,
    },
    {
        "id": 6, "name": "Outlet replacement",
        "description": "Decora device and plate",
        "formula": "outlet_count * 9.50",
        "labor_formula": "outlet_count * 45",
        "markup": 20,
    },
]

DEFAULT_TEMPLATES = [
    {
        "id": 1,
        "name": "Bedroom Refresh",
        "description": "Paint, flooring and trim for a single bedroom",
        "image": "",
        "module_ids": [2, 3],
        "parameter_ids": [1, 2, 3, 4, 5],
        "template_elements": [(2, 2, 15), (3, 2, None), (4, 3, 12), (5, 3, None)],
    },
    {
        "id": 2,
        "name": "Basement Finish",
        "description": "Drywall, paint, flooring and devices for an open basement room",
        "image": "",
        "module_ids": [1, 2, 3, 4],
        "parameter_ids": [1, 2, 3, 4, 6],
        "template_elements": [(1, 1, None), (2, 2, None), (4, 3, None), (6, 4, 20)],
    },
]


def seed_catalog(db: Session) -> int:
    """Insert any missing default catalog rows. Returns the number of rows added."""
    added = 0
    for data in DEFAULT_PARAMETERS:
        if not db.query(models.Parameter).filter(models.Parameter.id == data["id"]).first():
            db.add(models.Parameter(**data))
            added += 1
    for data in DEFAULT_MODULES:
        if not db.query(models.Module).filter(models.Module.id == data["id"]).first():
            db.add(models.Module(**data))
            added += 1
    for data in DEFAULT_ELEMENTS:
        if not db.query(models.Element).filter(models.Element.id == data["id"]).first():
            db.add(models.Element(**data))
            added += 1

    modules = {m["id"]: m for m in DEFAULT_MODULES}
    elements = {e["id"]: e for e in DEFAULT_ELEMENTS}
    parameters = {p["id"]: p for p in DEFAULT_PARAMETERS}
    for data in DEFAULT_TEMPLATES:
        if db.query(models.Template).filter(models.Template.id == data["id"]).first():
            continue
        db.add(models.Template(
            id=data["id"],
            name=data["name"],
            description=data["description"],
            image=data["image"],
            modules_json=[modules[i] for i in data["module_ids"]],
            parameters_json=[parameters[i] for i in data["parameter_ids"]],
            template_elements_json=[
                {"element": elements[el_id], "module": modules[mod_id], "markup": markup}
                for el_id, mod_id, markup in data["template_elements"]
            ],
        ))
        added += 1
    db.commit()
    return added


def template_from_row(row: models.Template) -> schemas.Template:
    return schemas.Template(
        id=row.id,
        name=row.name,
        description=row.description,
        image=row.image,
        modules=row.modules_json or [],
        parameters=row.parameters_json or [],
        template_elements=row.template_elements_json or [],
    )


@router.get("/seed")
def seed(db: Session = Depends(get_db)):
    """Seed the default catalog."""
    return {"ok": True, "seeded": seed_catalog(db)}


@router.get("/templates", response_model=List[schemas.Template])
def list_templates(db: Session = Depends(get_db)):
    return [template_from_row(t) for t in db.query(models.Template).order_by(models.Template.id).all()]


@router.get("/templates/{template_id}", response_model=schemas.Template)
def get_template(template_id: int, db: Session = Depends(get_db)):
    row = db.query(models.Template).filter(models.Template.id == template_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")
    return template_from_row(row)


@router.get("/modules", response_model=List[schemas.Module])
def list_modules(db: Session = Depends(get_db)):
    return db.query(models.Module).order_by(models.Module.name).all()


@router.get("/elements", response_model=List[schemas.ElementDefinition])
def list_elements(db: Session = Depends(get_db)):
    return db.query(models.Element).order_by(models.Element.name).all()


@router.get("/parameters", response_model=List[schemas.Parameter])
def list_parameters(db: Session = Depends(get_db)):
    return db.query(models.Parameter).order_by(models.Parameter.name).all()
