from __future__ import annotations

from ..extensions import db


class RawMaterial(db.Model):
    """Purchasable input used on recipe lines."""
    __tablename__ = "raw_materials"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name_en = db.Column(db.String(128), nullable=False)
    name_ar = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    cost_per_unit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    category = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name_en": self.name_en,
            "name_ar": self.name_ar,
            "unit": self.unit,
            "cost_per_unit": self.cost_per_unit,
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "category": self.category,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Recipe(db.Model):
    """
    Bill of materials for one manufactured product.

    Costs are snapshotted when the recipe is saved; later raw material price
    changes do not touch existing recipes until they are saved again.
    """
    __tablename__ = "recipes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name_en = db.Column(db.String(128), nullable=False)
    name_ar = db.Column(db.String(128), nullable=True)
    output_quantity = db.Column(db.Numeric(12, 3), nullable=False)
    output_unit = db.Column(db.String(16), nullable=True)

    labor_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    overhead_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_material_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost_per_unit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "RecipeLine",
        back_populates="recipe",
        order_by="RecipeLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name_en": self.name_en,
            "name_ar": self.name_ar,
            "output_quantity": self.output_quantity,
            "output_unit": self.output_unit,
            "labor_cost": self.labor_cost,
            "overhead_cost": self.overhead_cost,
            "total_material_cost": self.total_material_cost,
            "total_cost": self.total_cost,
            "cost_per_unit": self.cost_per_unit,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class RecipeLine(db.Model):
    """Bill-of-materials line with the material cost captured at save time."""
    __tablename__ = "recipe_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey("raw_materials.id"), nullable=False, index=True)
    material_name = db.Column(db.String(128), nullable=False)
    unit = db.Column(db.String(16), nullable=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    cost_per_unit = db.Column(db.Numeric(12, 2), nullable=False)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False)

    recipe = db.relationship("Recipe", back_populates="lines")
    material = db.relationship("RawMaterial")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipe_id": self.recipe_id,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "cost_per_unit": self.cost_per_unit,
            "total_cost": self.total_cost,
        }


class ManufacturingOrder(db.Model):
    """
    Production order for a recipe (ledger parent for ProductionRun rows).

    produced_quantity plays the role of a paid amount: it is the running sum
    of production runs and never exceeds batch_size.
    """
    __tablename__ = "manufacturing_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=True, unique=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id"), nullable=False, index=True)
    batch_size = db.Column(db.Numeric(12, 3), nullable=False)
    produced_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # pending, in-progress, completed, cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    start_date = db.Column(db.Date, nullable=True)
    completion_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    recipe = db.relationship("Recipe", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "recipe_id": self.recipe_id,
            "recipe_sku": self.recipe.sku if self.recipe else None,
            "recipe_name": self.recipe.name_en if self.recipe else None,
            "batch_size": self.batch_size,
            "produced_quantity": self.produced_quantity,
            "unit_cost": self.unit_cost,
            "total_cost": self.total_cost,
            "status": self.status,
            "start_date": self.start_date,
            "completion_date": self.completion_date,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }


class ProductionRun(db.Model):
    """Immutable record of units produced against a manufacturing order."""
    __tablename__ = "production_runs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("manufacturing_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    run_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship(
        "ManufacturingOrder",
        backref=db.backref("runs", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "quantity": self.quantity,
            "run_date": self.run_date,
            "reference": self.reference,
            "notes": self.notes,
            "created_at": self.created_at,
        }
