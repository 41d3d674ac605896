from datetime import datetime, timedelta

import pytest

from okto.storage.database import Database
from okto.storage.models import LaunchRecord, LaunchStatus

NET = datetime(2026, 10, 20, 12, 0, 0)


def make_launch(
    ll_id: str = "launch-1",
    net: datetime = NET,
    status: int = LaunchStatus.GO,
    vehicle: str = "Falcon 9 Block 5",
    lsp: str = "SpaceX",
    mission_type: str = "Communications",
    seq_id: int = 0,
    name: str = "Falcon 9 | Starlink Group 10-1",
) -> LaunchRecord:
    return LaunchRecord(
        id=seq_id,
        ll_id=ll_id,
        name=name,
        status=int(status),
        payload="Starlink Group 10-1",
        vehicle=vehicle,
        location="Space Launch Complex 40",
        net=net,
        launch_window=timedelta(hours=4),
        mission_type=mission_type,
        mission_description="A batch of Starlink satellites.",
        lsp=lsp,
    )


def raw_launch(**overrides) -> dict:
    raw = {
        "id": "e3df2ecd-c239-472f-95e4-2b89b4f75800",
        "name": "Falcon 9 Block 5 | Starlink Group 10-1",
        "status": {"id": 1, "name": "Go for Launch", "abbrev": "Go"},
        "net": "2026-10-20T12:00:00Z",
        "window_start": "2026-10-20T12:00:00Z",
        "window_end": "2026-10-20T16:00:00Z",
        "image": "https://example.com/falcon9.jpg",
        "launch_service_provider": {"id": 121, "name": "SpaceX"},
        "rocket": {"configuration": {"full_name": "Falcon 9 Block 5"}},
        "mission": {
            "name": "Starlink Group 10-1",
            "type": "Communications",
            "description": "A batch of Starlink satellites.",
        },
        "pad": {"name": "Space Launch Complex 40"},
        "vidURLs": [],
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def database(tmp_path):
    return Database(db_path=str(tmp_path / "okto.db"))
