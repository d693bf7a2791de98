from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gameshop.models import Game, Order, OrderItem, OrderStatus
from gameshop.money import round2


def date_window(start: date | None, end: date | None) -> list:
    """Inclusive calendar-day filters on orders.created_at (UTC)."""
    clauses = []
    if start:
        clauses.append(Order.created_at >= datetime.combine(start, time.min, tzinfo=timezone.utc))
    if end:
        clauses.append(Order.created_at < datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc))
    return clauses


def paid_sales_subquery(start: date | None, end: date | None):
    return (
        select(
            OrderItem.game_id.label("game_id"),
            func.sum(OrderItem.qty).label("qty_sold"),
            func.sum(OrderItem.subtotal).label("revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.status == OrderStatus.PAID, *date_window(start, end))
        .group_by(OrderItem.game_id)
        .subquery()
    )


def top_games(
    session: Session,
    start: date | None,
    end: date | None,
    sort: str,
    limit: int,
    include_unsold: bool,
):
    sales = paid_sales_subquery(start, end)
    qty_sold = func.coalesce(sales.c.qty_sold, 0).label("qty_sold")
    revenue = func.coalesce(sales.c.revenue, 0).label("revenue")

    stmt = select(Game.id, Game.title, qty_sold, revenue)
    if include_unsold:
        stmt = stmt.outerjoin(sales, sales.c.game_id == Game.id)
    else:
        stmt = stmt.join(sales, sales.c.game_id == Game.id)

    order_col = revenue if sort == "revenue" else qty_sold
    stmt = stmt.order_by(order_col.desc(), Game.title.asc()).limit(limit)

    return [
        {
            "rank": index,
            "game_id": row.id,
            "title": row.title,
            "qty": int(row.qty_sold or 0),
            "revenue": round2(row.revenue),
        }
        for index, row in enumerate(session.execute(stmt).all(), start=1)
    ]


def get_kpis(session: Session, start: date | None, end: date | None):
    window = date_window(start, end)

    revenue_row = session.execute(
        select(
            func.coalesce(func.sum(Order.total_paid), 0).label("total_revenue"),
            func.count(Order.id).label("orders_count"),
            func.coalesce(func.avg(Order.total_paid), 0).label("avg_order_value"),
        ).where(Order.status == OrderStatus.PAID, *window)
    ).one()

    total_sales = session.execute(
        select(func.coalesce(func.sum(OrderItem.qty), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.status == OrderStatus.PAID, *window)
    ).scalar_one()

    top = top_games(session, start, end, "qty", 1, include_unsold=False)
    top_seller = None
    if top:
        top_seller = {k: top[0][k] for k in ("game_id", "title", "qty", "revenue")}

    return {
        "total_revenue": round2(revenue_row.total_revenue),
        "orders_count": int(revenue_row.orders_count or 0),
        "avg_order_value": round2(revenue_row.avg_order_value),
        "total_sales": int(total_sales or 0),
        "top_seller": top_seller,
    }
