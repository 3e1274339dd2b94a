from sqlalchemy import and_, func


def qty_or_zero(column):
    """Return SQL expression reading a nullable quantity column as zero."""
    return func.coalesce(column, 0)


def quantities_match(left, right):
    return qty_or_zero(left) == qty_or_zero(right)


def exact_bom_match(current_line, revision_line):
    """Join condition for a current BOM row and a revision row describing the same line unchanged."""
    return and_(
        revision_line.element_type_bom_id == current_line.id,
        quantities_match(current_line.quantity, revision_line.quantity),
    )
