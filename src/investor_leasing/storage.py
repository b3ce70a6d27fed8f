"""Persistence for saved calculations and per-session calculator settings.

Any SQLAlchemy URL works; the default is a local SQLite file, which is all a
single-user calculator needs.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from investor_leasing.errors import ScenarioNotFoundError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SavedCalculationModel(Base):
    __tablename__ = "saved_calculations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    request_json = Column(Text, nullable=False)
    result_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class UserSettingsModel(Base):
    __tablename__ = "user_settings"

    session_id = Column(String(128), primary_key=True)
    investors_json = Column(Text, nullable=False)
    business_params_json = Column(Text, nullable=False)
    renter_config_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ScenarioStore:
    """Database-backed store of named calculations."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def create(self, name: str, request: dict, result: dict) -> int:
        row = SavedCalculationModel(name=name, request_json=json.dumps(request), result_json=json.dumps(result))
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            logger.info("saved calculation %s (%s)", row.id, name)
            return int(row.id)

    def get(self, calculation_id: int) -> dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(SavedCalculationModel, calculation_id)
            if row is None:
                raise ScenarioNotFoundError(calculation_id)
            return self._to_dict(row)

    def list_all(self) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.execute(
                select(SavedCalculationModel).order_by(SavedCalculationModel.created_at.desc(), SavedCalculationModel.id.desc())
            ).scalars()
            return [
                {"id": row.id, "name": row.name, "created_at": row.created_at.isoformat()}
                for row in rows
            ]

    def update(self, calculation_id: int, name: str, request: dict, result: dict) -> dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(SavedCalculationModel, calculation_id)
            if row is None:
                raise ScenarioNotFoundError(calculation_id)
            row.name = name
            row.request_json = json.dumps(request)
            row.result_json = json.dumps(result)
            session.commit()
            return self._to_dict(row)

    def delete(self, calculation_id: int) -> None:
        with self._session_factory() as session:
            row = session.get(SavedCalculationModel, calculation_id)
            if row is None:
                raise ScenarioNotFoundError(calculation_id)
            session.delete(row)
            session.commit()

    def get_settings(self, session_id: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            row = session.get(UserSettingsModel, session_id)
            if row is None:
                return None
            return self._settings_to_dict(row)

    def put_settings(
        self,
        session_id: str,
        investors: list,
        business_params: dict | None,
        renter_config: dict | None,
    ) -> dict[str, Any]:
        with self._session_factory() as session:
            row = session.get(UserSettingsModel, session_id)
            if row is None:
                row = UserSettingsModel(session_id=session_id)
                session.add(row)
            row.investors_json = json.dumps(investors)
            row.business_params_json = json.dumps(business_params)
            row.renter_config_json = json.dumps(renter_config) if renter_config is not None else None
            session.commit()
            return self._settings_to_dict(row)

    @staticmethod
    def _settings_to_dict(row: UserSettingsModel) -> dict[str, Any]:
        return {
            "session_id": row.session_id,
            "investors": json.loads(row.investors_json),
            "business_params": json.loads(row.business_params_json),
            "renter_config": json.loads(row.renter_config_json) if row.renter_config_json else None,
            "updated_at": row.updated_at.isoformat(),
        }

    @staticmethod
    def _to_dict(row: SavedCalculationModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "request": json.loads(row.request_json),
            "result": json.loads(row.result_json),
            "created_at": row.created_at.isoformat(),
            "updated_at": row.updated_at.isoformat(),
        }


def create_store(url: str | None = None) -> ScenarioStore:
    return ScenarioStore(url or "sqlite:///investor_leasing.sqlite3")
