"""Clubhouse CLI tool (clubctl)."""

from typing import Optional

import typer

app = typer.Typer(name="clubctl", help="Clubhouse CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


def _mysql_connect():
    """Connect to the MySQL server named by DATABASE_URL, without selecting the database."""
    import pymysql
    from sqlalchemy.engine import make_url
    from clubhouse.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"❌ {url.drivername} is not a MySQL URL; use 'clubctl db init' instead")
        raise typer.Exit(code=1)
    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    return conn, url.database


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    conn, db_name = _mysql_connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
        typer.echo(f"✅ Database '{db_name}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("init")
def db_init():
    """Create all tables."""
    from clubhouse.db.base import Base
    from clubhouse.db.session import engine
    import clubhouse.models  # noqa: F401  registers every table

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed():
    """Seed ranks, role groups and the admin user."""
    from clubhouse.db.session import SessionLocal
    from clubhouse.db.seeds.seed_roles import seed_roles
    from clubhouse.db.seeds.seed_admin import seed_admin

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate the database (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP the entire database. Continue?")
    if not confirm:
        raise typer.Abort()

    conn, db_name = _mysql_connect()
    try:
        cursor = conn.cursor()
        cursor.execute(f"DROP DATABASE IF EXISTS `{db_name}`")
        cursor.execute(f"CREATE DATABASE `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
        typer.echo(f"✅ Database '{db_name}' reset")
    finally:
        conn.close()


def _api_get(path: str, token: str, params: Optional[dict] = None):
    import httpx
    from clubhouse.core.config import settings

    resp = httpx.get(
        f"{settings.API_BASE_URL}{path}",
        params=params or {},
        headers={"Authorization": f"Bearer {token}"},
        timeout=30,
    )
    if resp.status_code >= 400:
        typer.echo(f"❌ {resp.status_code}: {resp.json().get('detail')}")
        raise typer.Exit(code=1)
    return resp.json()


@app.command("scopes")
def list_scopes(
    token: str = typer.Option(..., envvar="CLUBHOUSE_TOKEN", help="Access token"),
):
    """List the conversations the token's user can open."""
    data = _api_get("/messages/scopes", token)
    typer.echo(f"order: {data['user_order']}")
    for s in data["scopes"]:
        label = "global" if s["group_id"] is None else f"[{s['group_id']}] order {s['order']}"
        typer.echo(f"  {label}  {s['name']}")


@app.command("messages")
def list_messages(
    group_id: Optional[int] = typer.Option(None, help="Role group scope; omit for every scope"),
    limit: int = typer.Option(20, help="Number of messages"),
    token: str = typer.Option(..., envvar="CLUBHOUSE_TOKEN", help="Access token"),
):
    """Print recent messages."""
    params = {"limit": limit}
    if group_id is not None:
        params["group_id"] = group_id
    for m in _api_get("/messages", token, params):
        sender = (m.get("sender") or {}).get("username", m["sender_id"])
        pin = "📌 " if m["pinned"] else ""
        typer.echo(f"  {m['created_at']} {pin}{sender}: {m['content']}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("clubhouse.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
