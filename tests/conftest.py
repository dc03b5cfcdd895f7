import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_brandguard.db")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("ASSEMBLYAI_API_KEY", "test-assemblyai-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

import pytest
from sqlalchemy import delete

from brandguard.db.base import Base, SessionLocal, engine
from brandguard.db.models import AnalysisJob, Brand, Campaign, CreativeAsset


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.execute(delete(AnalysisJob))
    session.execute(delete(CreativeAsset))
    session.execute(delete(Campaign))
    session.execute(delete(Brand))
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def brand(db_session):
    row = Brand(
        name="Acme",
        industry="beverages",
        color_palette=["#FF0000", "#FFFFFF"],
        logo_files=["logos/acme.png"],
        tone_keywords=["playful", "bold"],
        banned_terms=["cheap"],
        required_disclaimers=["Drink responsibly"],
        phonetic_pronunciation="ACK-mee",
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def campaign(db_session, brand):
    row = Campaign(name="Summer launch", brand_id=brand.id)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def make_asset(db_session, campaign):
    def _make(
        *,
        asset_name: str = "spot.mp4",
        mime_type: str = "video/mp4",
        status: str = "pending",
        storage_path: str | None = "assets/spot.mp4",
        campaign_id: str | None = None,
    ) -> CreativeAsset:
        row = CreativeAsset(
            campaign_id=campaign_id or campaign.id,
            asset_name=asset_name,
            mime_type=mime_type,
            status=status,
            storage_path=storage_path,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def override_dependencies(db_session):
    from brandguard.db.deps import get_session
    from brandguard.main import app

    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_session] = get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()
