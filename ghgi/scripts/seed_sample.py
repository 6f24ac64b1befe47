from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ghgi.core.config import settings
from ghgi.db.models.form_type import FormType
from ghgi.modules.forms.service import (
    create_form_type,
    create_schema_version,
    get_field_mapping,
    resolve_effective_schema,
    save_field_mapping,
)

logger = logging.getLogger("ghgi.seed")

BARANGAYS = ["Barangay 1", "Barangay 2", "Barangay 3"]  # demo placeholder
APPLICATIONS = ["Cooking", "Lighting", "Heating", "Generators", "Other"]
FUEL_TYPES = ["LPG", "Kerosene", "Diesel", "Gasoline", "Biomass/Wood", "Charcoal", "Natural Gas", "Other"]
UNITS = ["litres", "kg", "tonnes", "m3"]


def _stationary_combustion_fields(*, survey_option: str, source_hint: str, application_hint: str) -> list[dict]:
    return [
        {"key": "district_or_barangay", "label": "District or Barangay", "type": "select", "required": True, "options": BARANGAYS},
        {"key": "data_source_identifier", "label": "Data Source Identifier", "type": "text", "required": True, "placeholder": source_hint},
        {
            "key": "type_of_data",
            "label": "Type of Data",
            "type": "select",
            "required": True,
            "options": [survey_option, "National Census Averages", "Other"],
        },
        {"key": "application", "label": "Application", "type": "select", "required": True, "options": APPLICATIONS, "placeholder": application_hint},
        {"key": "fuel_type", "label": "Fuel Type", "type": "select", "required": True, "options": FUEL_TYPES},
        {"key": "annual_total_consumption", "label": "Annual Total Consumption", "type": "number", "required": True, "min": 0},
        {"key": "units", "label": "Units", "type": "select", "required": True, "options": UNITS, "help": "Metric only"},
        {"key": "data_uncertainty", "label": "Data Uncertainty", "type": "text", "required": False, "help": "See guidance document for source/quality management"},
        {"key": "account_or_file_code", "label": "Account or File Code Where Data is Stored", "type": "text", "required": False},
        {"key": "date_transcribed", "label": "Date Transcribed / Date Sourced", "type": "date", "required": False},
        {
            "key": "ownership_storage_location",
            "label": "Ownership and Storage Location of Data",
            "type": "text",
            "required": False,
            "placeholder": "e.g. LGU server, Government office, organization",
        },
        {"key": "qc_reference", "label": "Corresponding Quality Control (QC) Reference", "type": "text", "required": False},
        {"key": "basis_of_data_uncertainty", "label": "Basis of Data Uncertainty", "type": "text", "required": False},
    ]


def _stationary_combustion_ui(title: str) -> dict:
    return {
        "title": title,
        "sections": [
            {
                "key": "activity_data",
                "label": "Activity Data",
                "field_keys": [
                    "district_or_barangay",
                    "data_source_identifier",
                    "type_of_data",
                    "application",
                    "fuel_type",
                    "annual_total_consumption",
                    "units",
                ],
            },
            {
                "key": "quality_and_traceability",
                "label": "Quality & Traceability",
                "field_keys": [
                    "data_uncertainty",
                    "basis_of_data_uncertainty",
                    "account_or_file_code",
                    "date_transcribed",
                    "ownership_storage_location",
                    "qc_reference",
                ],
            },
        ],
        "ui": {"layout": "single_column", "submit_label": "Save Entry"},
    }


SAMPLE_FORMS = [
    {
        "key": "stat-comb-residential",
        "name": "Stat Comb-Residential Data",
        "kind": "residential",
        "description": "Stationary combustion activity data (residential).",
        "fields": _stationary_combustion_fields(
            survey_option="Individual Household Surveys",
            source_hint="e.g. Residential Survey Number",
            application_hint="e.g. cooking, lighting, generators",
        ),
    },
    {
        "key": "stat-comb-commercial",
        "name": "Stat Comb-Commercial Data",
        "kind": "commercial",
        "description": "Stationary combustion activity data (commercial).",
        "fields": _stationary_combustion_fields(
            survey_option="Individual Business Surveys",
            source_hint="e.g. commercial fuel use survey ID",
            application_hint="e.g. cooking, heating, generators",
        ),
    },
]


def _get_or_create_form_type(db: Session, form_def: dict) -> FormType:
    f = db.query(FormType).filter(FormType.key == form_def["key"]).first()
    if not f:
        f = create_form_type(
            db,
            key=form_def["key"],
            name=form_def["name"],
            sector_key="stationary_combustion",
            description=form_def["description"],
        )
    return f


def seed_sample(db: Session, year: int | None = None) -> None:
    """Stationary combustion sample forms with an active schema for `year` (idempotent)."""
    year = int(year or settings.DEFAULT_YEAR)
    for form_def in SAMPLE_FORMS:
        f = _get_or_create_form_type(db, form_def)
        if resolve_effective_schema(db, f.id, year) is None:
            create_schema_version(
                db,
                f.id,
                year,
                form_def["fields"],
                ui_hints=_stationary_combustion_ui(form_def["name"]),
                status="active",
                extra={"title": form_def["name"], "kind": form_def["kind"]},
            )
            logger.info("seeded schema for %s (%s)", form_def["key"], year)
        if get_field_mapping(db, f.id, year) is None:
            # field_key -> activity input key of the emissions engine, filled in later
            save_field_mapping(db, f.id, year, {})
