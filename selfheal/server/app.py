from __future__ import annotations

import logging

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from selfheal.config.loader import ConfigLoader
from selfheal.config.schema import HealingSettings
from selfheal.core.exceptions import BadRequestError, RepositoryUnavailableError
from selfheal.core.healer import HealingEngine
from selfheal.core.metadata import Fingerprint
from selfheal.core.outcomes import AMBIGUOUS, HEALED, NO_FINGERPRINT, HealOutcome
from selfheal.core.repository import FingerprintRepository, create_repository
from selfheal.logging.audit import HealingAuditLogger

log = logging.getLogger(__name__)

STATUS_CODES = {
    HEALED: 200,
    AMBIGUOUS: 409,
}

MESSAGES = {
    HEALED: "Healed",
    AMBIGUOUS: "Ambiguous healing (top candidates tie at {confidence}%).",
    NO_FINGERPRINT: "No fingerprint found.",
}


class LearnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    page_key: str = Field(alias="pageKey", min_length=1)
    id: str = Field(min_length=1)
    tag_name: str = Field(alias="tagName", min_length=1)
    class_name: str | None = Field(None, validation_alias=AliasChoices("className", "class"))
    inner_text: str | None = Field(None, alias="innerText")
    placeholder: str | None = None
    input_type: str | None = Field(None, validation_alias=AliasChoices("inputType", "type"))
    aria_label: str | None = Field(None, validation_alias=AliasChoices("ariaLabel", "aria-label"))

    def to_fingerprint(self) -> Fingerprint:
        return Fingerprint(
            element_id=self.id,
            tag_name=self.tag_name,
            class_names=self.class_name,
            inner_text=self.inner_text,
            placeholder=self.placeholder,
            input_type=self.input_type,
            aria_label=self.aria_label,
        )


class HealRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    page_key: str = Field(alias="pageKey", min_length=1)
    broken_id: str = Field(alias="brokenId", min_length=1)
    dom_snapshot: str = Field(alias="domSnapshot", min_length=1)


def create_app(
    settings: HealingSettings | None = None,
    repository: FingerprintRepository | None = None,
    logger: logging.Logger | None = None,
) -> Flask:
    settings = settings or HealingSettings()
    repository = repository or create_repository(settings.storage)
    audit_logger = HealingAuditLogger(settings.audit_dir) if settings.audit_dir else None

    app = Flask(__name__)
    app.json.sort_keys = False
    CORS(app)
    app.extensions["selfheal"] = HealingEngine(repository, settings, audit_logger, logger or log)

    @app.errorhandler(BadRequestError)
    def handle_bad_request(exc: BadRequestError):
        return jsonify({"status": "bad_request", "message": str(exc)}), 400

    @app.errorhandler(RepositoryUnavailableError)
    def handle_repository_unavailable(exc: RepositoryUnavailableError):
        _engine().log.error("Fingerprint repository unavailable: %s", exc)
        return jsonify({"status": "repository_unavailable", "message": str(exc)}), 503

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    @app.route("/learn", methods=["POST"])
    def learn():
        payload = _parse(LearnRequest, "pageKey, id, tagName required")
        if isinstance(payload, tuple):
            return payload
        stored = _engine().learn(payload.page_key, payload.to_fingerprint())
        return jsonify({"message": "Snapshot stored", "stored": stored.to_payload()}), 200

    @app.route("/heal", methods=["POST"])
    def heal():
        payload = _parse(HealRequest, "pageKey, brokenId, domSnapshot required")
        if isinstance(payload, tuple):
            return payload
        outcome = _engine().heal(payload.page_key, payload.broken_id, payload.dom_snapshot)
        return _outcome_response(outcome)

    @app.route("/fingerprints/<path:page_key>")
    def fingerprints(page_key: str):
        records = _engine().repository.list_page(page_key)
        return jsonify({"pageKey": page_key, "fingerprints": [record.to_payload() for record in records]})

    return app


def _engine() -> HealingEngine:
    return current_app.extensions["selfheal"]


def _parse(model: type[BaseModel], message: str):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"status": "bad_request", "message": "Request body must be JSON"}), 400
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return jsonify({"status": "bad_request", "message": message, "errors": errors}), 400


def _outcome_response(outcome: HealOutcome):
    body = outcome.to_payload()
    template = MESSAGES.get(
        outcome.status,
        "Healing failed. No element strongly matched fingerprint.",
    )
    body["message"] = template.format(confidence=outcome.confidence)
    return jsonify(body), STATUS_CODES.get(outcome.status, 404)


def main() -> None:
    settings = ConfigLoader.from_env()
    logging.basicConfig(level=settings.log_level)
    app = create_app(settings)
    log.info(
        "Healing server running at http://%s:%s (threshold %s%%, storage %s)",
        settings.server.host,
        settings.server.port,
        settings.threshold,
        settings.storage.backend,
    )
    app.run(host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
