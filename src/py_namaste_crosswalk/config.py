# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    """
    Manages the application's configuration settings.
    Utilizes Pydantic's BaseSettings to allow for environment variable overrides.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="PYNAMASTECROSSWALK_"
    )

    # --- Coding System URIs ---
    namaste_system: str = Field(
        "http://terminology.ayush.gov.in/CodeSystem/namaste",
        description="Canonical URI of the NAMASTE code system."
    )
    icd11_tm2_system: str = Field(
        "http://id.who.int/icd/release/11/tm2",
        description="Canonical URI of the ICD-11 Traditional Medicine Module 2."
    )
    icd11_biomedicine_system: str = Field(
        "http://id.who.int/icd/release/11/mms",
        description="Canonical URI of the ICD-11 Biomedicine (MMS) linearization."
    )

    # --- FHIR Publication ---
    fhir_base_url: str = Field("http://localhost:8080/fhir", description="Base URL used to build resource URLs.")
    namaste_version: str = Field("1.0", description="Version stamped on the NAMASTE CodeSystem and its codes.")
    publisher: str = Field("Ministry of AYUSH, Government of India", description="Publisher of generated resources.")
    autocomplete_limit: int = Field(10, description="Maximum matches returned per catalog by autocomplete.")

    # --- Catalog Sources ---
    namaste_csv_path: str = Field(
        str(DATA_DIR / "namaste_codes.csv"),
        description="Path to the NAMASTE CSV file loaded at startup."
    )
    icd11_csv_path: str = Field(
        str(DATA_DIR / "icd11_sample.csv"),
        description="Path to sample ICD-11 data loaded at startup. Empty string disables it."
    )

    # --- ICD-11 API ---
    icd11_token_url: str = Field(
        "https://icdaccessmanagement.who.int/connect/token",
        description="OAuth2 token endpoint of the WHO ICD API."
    )
    icd11_client_id: str = Field("", description="WHO ICD API client id.")
    icd11_client_secret: str = Field("", description="WHO ICD API client secret.")
    icd11_scope: str = Field("icdapi_access", description="OAuth2 scope requested for the ICD API.")
    icd11_tm2_url: str = Field(
        "https://id.who.int/icd/release/11/2019-04/mms/tm2",
        description="Root entity of the TM2 module."
    )
    icd11_biomedicine_url: str = Field(
        "https://id.who.int/icd/release/11/2019-04/mms",
        description="Root entity of the MMS (Biomedicine) linearization."
    )
    icd11_request_timeout: int = Field(30, description="Timeout in seconds for ICD API requests.")

    # --- Background Jobs ---
    token_refresh_seconds: int = Field(3600, description="Interval between access token refreshes.")
    sync_interval_seconds: int = Field(86400, description="Interval between scheduled ICD-11 synchronizations.")
    background_workers: int = Field(2, description="Worker threads for admin-triggered background jobs.")

    # --- Neo4j Database ---
    neo4j_uri: str = Field("neo4j://localhost:7687", description="Neo4j instance URI.")
    neo4j_user: str = Field("neo4j", description="Neo4j username.")
    neo4j_password: str = Field("password", description="Neo4j password.")
    neo4j_database: str = Field("neo4j", description="Neo4j target database name.")


# Instantiate a global settings object to be used throughout the application
settings = Settings()
