"""SQLAlchemy table definitions.

One row per thread message; ``seq`` is the message's position in the thread,
so the composite primary key rejects two writers appending at the same
position.
"""

import sqlalchemy as sa

db_metadata = sa.MetaData()

thread_messages = sa.Table(
    "thread_messages",
    db_metadata,
    sa.Column("thread_id", sa.String(255), primary_key=True),
    sa.Column("seq", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("role", sa.String(16), nullable=False),
    sa.Column("payload", sa.JSON, nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    ),
)
