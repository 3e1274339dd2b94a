import os
from decimal import Decimal

from sqlalchemy.orm import Session

from .auth import hash_password
from .bom.service import create_element, replace_element_type_bom
from .db import SessionLocal
from .models import (
    Activity,
    BomProduct,
    ElementType,
    ElementTypeBOM,
    InventoryTrack,
    Project,
    User,
    Warehouse,
)


def _truncate_to_bcrypt_limit(password: str) -> str:
    """Truncate to bcrypt's 72-byte limit to avoid backend ValueError."""
    encoded = password.encode("utf-8")
    if len(encoded) <= 72:
        return password

    truncated = encoded[:72]
    while True:
        try:
            return truncated.decode("utf-8")
        except UnicodeDecodeError:
            truncated = truncated[:-1]


DEMO_PRODUCTS = [
    ("Cement OPC 53", "bag", Decimal("380.00")),
    ("TMT Bar 12mm", "kg", Decimal("62.50")),
    ("Binding Wire", "kg", Decimal("85.00")),
    ("Lifting Hook", "nos", Decimal("140.00")),
]

DEMO_BOM = [
    ("Cement OPC 53", 8),
    ("TMT Bar 12mm", 120),
    ("Binding Wire", 2),
]

REVISED_BOM = [
    ("Cement OPC 53", 9),
    ("TMT Bar 12mm", 120),
    ("Lifting Hook", 4),
]

OPENING_STOCK = {
    "Cement OPC 53": Decimal("500"),
    "TMT Bar 12mm": Decimal("4000"),
    "Binding Wire": Decimal("60"),
    "Lifting Hook": Decimal("40"),
}


def _get_or_create_project(db: Session) -> Project:
    project = db.query(Project).order_by(Project.project_id.asc()).first()
    if project:
        return project
    project = Project(name="Demo Precast Yard")
    db.add(project)
    db.flush()
    return project


def _get_or_create_user(db: Session) -> User:
    email = os.getenv("SEED_EMAIL", "admin@precast.local")
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    password = _truncate_to_bcrypt_limit(os.getenv("SEED_PASSWORD", "password123!"))
    user = User(
        email=email,
        first_name="Site",
        last_name="Admin",
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def _seed_products(db: Session) -> dict[str, BomProduct]:
    products = {product.product_name: product for product in db.query(BomProduct).all()}
    for name, unit, rate in DEMO_PRODUCTS:
        if name not in products:
            product = BomProduct(product_name=name, unit=unit, rate=rate)
            db.add(product)
            products[name] = product
    db.flush()
    return products


def _seed_opening_stock(db: Session, project: Project, products: dict[str, BomProduct]) -> None:
    warehouse = db.query(Warehouse).filter(Warehouse.project_id == project.project_id).first()
    if not warehouse:
        warehouse = Warehouse(project_id=project.project_id, name="Main Store")
        db.add(warehouse)
        db.flush()
    for name, qty in OPENING_STOCK.items():
        product = products[name]
        exists = (
            db.query(InventoryTrack.inv_track_id)
            .filter(InventoryTrack.project_id == project.project_id, InventoryTrack.bom_id == product.id)
            .first()
        )
        if not exists:
            db.add(
                InventoryTrack(
                    project_id=project.project_id,
                    bom_id=product.id,
                    warehouse_id=warehouse.id,
                    bom_qty=qty,
                )
            )


def _seed_revised_element_type(db: Session, project: Project, products: dict[str, BomProduct], created_by: str) -> None:
    """One element type produced against its first BOM and revised afterwards."""
    name = "Hollow Core Slab HC-200"
    if db.query(ElementType).filter(ElementType.project_id == project.project_id, ElementType.element_type_name == name).first():
        return

    element_type = ElementType(
        project_id=project.project_id,
        element_type_name=name,
        element_type_version="RV-1",
        created_by=created_by,
    )
    db.add(element_type)
    db.flush()
    for product_name, quantity in DEMO_BOM:
        product = products[product_name]
        element_type.bom_lines.append(
            ElementTypeBOM(
                project_id=project.project_id,
                product_id=product.id,
                product_name=product.product_name,
                quantity=quantity,
                unit=product.unit,
                rate=product.rate,
            )
        )
    db.flush()

    element = create_element(db, element_type=element_type, element_code="HC-200-001", instage=True)
    db.add(Activity(element_id=element.id, project_id=project.project_id, name="Casting", completed=True))

    replace_element_type_bom(
        db,
        element_type,
        [{"product_id": products[product_name].id, "quantity": quantity} for product_name, quantity in REVISED_BOM],
        updated_by=created_by,
    )


def run_seed():
    db: Session = SessionLocal()
    try:
        project = _get_or_create_project(db)
        user = _get_or_create_user(db)
        products = _seed_products(db)
        _seed_opening_stock(db, project, products)
        _seed_revised_element_type(db, project, products, user.display_name)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
