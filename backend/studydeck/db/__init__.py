from pathlib import Path

from studydeck.db.chromadb_ import init_chromadb
from studydeck.db.sqlite import init_sqlite


async def init_all_databases(data_dir: Path) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    await init_sqlite(data_dir)
    init_chromadb(data_dir)
