"""Secret reference resolution for the Okta API token and database password.

A setting may hold a reference instead of the plaintext value:

  aws-secret://name            AWS Secrets Manager, whole SecretString
  aws-secret://name#key        AWS Secrets Manager, one key of a JSON secret
  gcp-secret://name            GCP Secret Manager, latest version
  gcp-secret://projects/...    GCP Secret Manager, full resource name

Anything else is returned unchanged.
"""

from __future__ import annotations

import json
import logging
import os

import requests

from scripts.okta_ingestion.errors import ConfigError

logger = logging.getLogger("ingestion.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"

_GCP_METADATA_PROJECT_URL = (
    "http://metadata.google.internal/computeMetadata/v1/project/project-id"
)


def resolve_secret(value: str) -> str:
    """Return the plaintext for ``value``, fetching it if it is a secret reference."""
    if value.startswith(_AWS_PREFIX):
        return _from_aws(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _from_gcp(value[len(_GCP_PREFIX):])
    return value


def _from_aws(ref: str) -> str:
    import boto3

    secret_id, _, json_key = ref.partition("#")
    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    logger.info("Resolving secret from AWS Secrets Manager: %s", secret_id)
    secret_string = client.get_secret_value(SecretId=secret_id)["SecretString"]
    if not json_key:
        return secret_string
    try:
        return str(json.loads(secret_string)[json_key])
    except (ValueError, KeyError) as exc:
        raise ConfigError(
            f"Secret {secret_id} has no JSON key {json_key!r}"
        ) from exc


def _from_gcp(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID") or _gcp_project_from_metadata()
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    logger.info("Resolving secret from GCP Secret Manager: %s", name)
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


def _gcp_project_from_metadata() -> str:
    """Ask the GCE/Cloud Run metadata server which project we are running in."""
    try:
        resp = requests.get(
            _GCP_METADATA_PROJECT_URL,
            headers={"Metadata-Flavor": "Google"},
            timeout=2,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ConfigError(
            "Cannot determine GCP project ID. Set GCP_PROJECT_ID env var."
        ) from exc
    return resp.text


def resolve_database_url() -> str:
    """DATABASE_URL if set, otherwise a DSN assembled from the PG_* variables."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    host = os.environ.get("PG_HOST", "localhost")
    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "okta_ingest")
    password = resolve_secret(os.environ.get("PG_PASSWORD", "localdev-change-me"))
    database = os.environ.get("PG_DATABASE", "okta_graph")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"
