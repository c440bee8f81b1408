"""Turn raw source rows into domain records, flagging rows that fail validation"""

from typing import Any, Dict, Iterable, List, Mapping, Tuple, Type

from pydantic import ValidationError

from settlement_engine.domain.models import Booking, Charge, Flag, FlagKind, Host
from settlement_engine.sources.schemas import BookingRecord, ChargeRecord, HostRecord, SourceRecord


def _load(rows: Iterable[Mapping[str, Any]], schema: Type[SourceRecord]) -> Tuple[list, List[Flag]]:
    records = []
    flags: List[Flag] = []
    for index, row in enumerate(rows):
        try:
            records.append(schema.model_validate(row).to_domain())
        except ValidationError as e:
            record_id = str(row.get("id") or f"row-{index}")
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            flags.append(
                Flag(
                    kind=FlagKind.DATA_INTEGRITY,
                    record_id=record_id,
                    code="invalid_record",
                    message=f"{schema.__name__} failed validation on: {fields}",
                )
            )
    return records, flags


def load_bookings(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[Booking], List[Flag]]:
    return _load(rows, BookingRecord)


def load_hosts(rows: Iterable[Mapping[str, Any]]) -> Tuple[Dict[str, Host], List[Flag]]:
    """Host directory keyed by host id"""
    hosts, flags = _load(rows, HostRecord)
    return {host.host_id: host for host in hosts}, flags


def load_charges(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[Charge], List[Flag]]:
    return _load(rows, ChargeRecord)
