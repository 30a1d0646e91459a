import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from pulse.core.enums import ProcessingStatus
from pulse.core.materializer import materialize_events
from pulse.core.parsed_data import AIClassification, AIParsedData
from pulse.db.models import SmartLog
from pulse.db.repository import Repository
from pulse.services.llm import ClassifierClient

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    success: bool
    classification: Optional[AIClassification] = None
    parsed: Optional[AIParsedData] = None
    events_created: Optional[int] = None
    error: Optional[str] = None


def _has_content(smart_log: SmartLog) -> bool:
    has_text = bool(smart_log.raw_text and smart_log.raw_text.strip())
    return has_text or bool(smart_log.media_urls)


def reset_for_reanalysis(
    repo: Repository,
    smart_log: SmartLog,
    raw_text: Optional[str],
    media_urls: Optional[list[str]],
) -> int:
    """Apply a client edit and queue the log for a fresh analysis.

    Events derived from the previous analysis are removed so a later pass
    only reflects the new content. Returns the number of events removed.
    """
    smart_log.raw_text = raw_text
    smart_log.media_urls = media_urls
    smart_log.processing_status = ProcessingStatus.PENDING.value
    smart_log.ai_classification_json = None
    smart_log.ai_parsed_json = None
    smart_log.processing_error = None
    removed = repo.delete_progress_events_for_log(smart_log.id)
    repo.commit()
    logger.info("smart_log_reset smart_log_id=%s events_removed=%s", smart_log.id, removed)
    return removed


class SmartLogProcessor:
    def __init__(self, repo: Repository, classifier: ClassifierClient) -> None:
        self.repo = repo
        self.classifier = classifier

    def _classify(self, text: Optional[str], media_urls: list[str]) -> AIClassification:
        try:
            return AIClassification.model_validate(self.classifier.classify(text, media_urls))
        except ValidationError as exc:
            logger.warning("smart_log_classification_invalid errors=%s", exc.error_count())
            return AIClassification.degraded()
        except Exception as exc:
            logger.warning("smart_log_classify_degraded detail=%s", str(exc)[:220])
            return AIClassification.degraded()

    def _extract(
        self, text: Optional[str], media_urls: list[str], classification: AIClassification
    ) -> AIParsedData:
        if not classification.warrants_extraction():
            return AIParsedData()
        try:
            return AIParsedData.from_llm(self.classifier.extract(text, media_urls, classification))
        except Exception as exc:
            logger.warning("smart_log_extract_degraded detail=%s", str(exc)[:220])
            return AIParsedData()

    def process(self, smart_log_id: str) -> ProcessResult:
        smart_log = self.repo.get_smart_log(smart_log_id)
        if smart_log is None:
            return ProcessResult(success=False, error="Smart log not found")

        try:
            if not _has_content(smart_log):
                smart_log.processing_status = ProcessingStatus.COMPLETED.value
                smart_log.ai_classification_json = None
                smart_log.ai_parsed_json = None
                self.repo.commit()
                return ProcessResult(success=True, events_created=0)

            smart_log.processing_status = ProcessingStatus.PROCESSING.value
            self.repo.commit()

            text = smart_log.raw_text or None
            media_urls = list(smart_log.media_urls or [])

            classification = self._classify(text, media_urls)
            smart_log.ai_classification_json = classification.model_dump(mode="json")
            self.repo.commit()

            parsed = self._extract(text, media_urls, classification)
            smart_log.ai_parsed_json = parsed.to_json()

            drafts = materialize_events(
                parsed,
                client_id=smart_log.client_id,
                smart_log_id=smart_log.id,
                date_for_metric=smart_log.local_date_for_client,
            )
            for draft in drafts:
                self.repo.add_progress_event(draft)

            smart_log.processing_status = ProcessingStatus.COMPLETED.value
            self.repo.commit()
        except Exception as exc:
            logger.exception("smart_log_processing_failed smart_log_id=%s", smart_log_id)
            return self._mark_failed(smart_log_id, exc)

        logger.info(
            "smart_log_processed smart_log_id=%s client_id=%s events=%s confidence=%.2f",
            smart_log.id,
            smart_log.client_id,
            len(drafts),
            classification.overall_confidence,
        )
        return ProcessResult(
            success=True,
            classification=classification,
            parsed=parsed,
            events_created=len(drafts),
        )

    def _mark_failed(self, smart_log_id: str, exc: Exception) -> ProcessResult:
        message = str(exc) or exc.__class__.__name__
        self.repo.rollback()
        smart_log = self.repo.get_smart_log(smart_log_id)
        if smart_log is not None:
            smart_log.processing_status = ProcessingStatus.FAILED.value
            smart_log.processing_error = message
            self.repo.commit()
        return ProcessResult(success=False, error=message)
