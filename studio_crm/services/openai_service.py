"""
OpenAI Service for project reports.

Writes the client-facing weekly report for a design project and analyses
on-site design issues. Both operations degrade to fixed fallback texts
when the model is unavailable, so the console never shows a raw error.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import openai
from openai import AsyncOpenAI

from studio_crm.config import Settings
from studio_crm.features.projects.domain.models import DesignProject
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EMPTY_REPORT_TEXT = "AI 無法生成報告內容。"
REPORT_ERROR_TEXT = "生成週報時發生錯誤，請稍後再試。"
ANALYSIS_ERROR_TEXT = "目前無法進行 AI 分析，請稍後再試。"
FALLBACK_SUGGESTIONS = ["建議諮詢專業技師", "確認現場施工圖面", "與業主討論替代方案"]

REPORT_SYSTEM_MESSAGE = (
    "你是一間室內設計公司的專案經理，負責撰寫給業主看的專案週報。"
    "語氣專業、簡潔，不提及任何內部成本或敏感資訊。"
)

ANALYSIS_SYSTEM_MESSAGE = (
    "你是資深室內設計與施工顧問。請針對專案問題進行分析並提出具體建議。"
    '只回傳 JSON：{"analysis": "string", "suggestions": ["string", ...]}'
)


class AIServiceError(Exception):
    """Raised when the model call fails or returns something unusable."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


@dataclass(slots=True)
class DesignIssueAnalysis:
    analysis: str
    suggestions: list[str] = field(default_factory=list)


def build_report_prompt(project: DesignProject) -> str:
    # Internal notes stay internal: the report goes straight to the client
    return f"""請為以下室內設計專案撰寫一份專業的週報：

專案名稱：{project.project_name}
目前階段：{project.current_stage}
負責人員：{project.assigned_employee}

本週最新進度：
{project.latest_progress_notes}

客戶需求：
{project.client_requests}

請包含：
1. 本週進度摘要
2. 下週預計事項
3. 注意事項 (基於客戶需求)
"""


def build_analysis_prompt(project: DesignProject, issue: str) -> str:
    return f"""針對以下室內設計專案問題進行分析與建議：
專案：{project.project_name} ({project.current_stage})
問題：{issue}
"""


def parse_analysis(content: str) -> DesignIssueAnalysis:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise AIServiceError("Model returned invalid JSON") from e

    if not isinstance(data, dict) or not isinstance(data.get("analysis"), str):
        raise AIServiceError("Model response is missing the analysis text")
    suggestions = data.get("suggestions") or []
    if not isinstance(suggestions, list):
        raise AIServiceError("Model suggestions must be a list")
    return DesignIssueAnalysis(
        analysis=data["analysis"], suggestions=[str(s) for s in suggestions]
    )


class OpenAIService:
    """
    Thin wrapper over the async OpenAI client.

    A missing API key is not fatal: the service is still constructed and
    every call falls back to the fixed texts.
    """

    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
            )
        logger.info("OpenAI service initialized", configured=self.client is not None)

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def generate_project_report(self, project: DesignProject) -> str:
        try:
            content = await self._call_with_retry(
                model=self.settings.OPENAI_REPORT_MODEL,
                system_message=REPORT_SYSTEM_MESSAGE,
                user_message=build_report_prompt(project),
            )
        except AIServiceError as e:
            logger.error("Project report generation failed", project_id=project.id, error=str(e))
            return REPORT_ERROR_TEXT

        return content or EMPTY_REPORT_TEXT

    async def analyze_design_issue(self, project: DesignProject, issue: str) -> DesignIssueAnalysis:
        try:
            content = await self._call_with_retry(
                model=self.settings.OPENAI_ANALYSIS_MODEL,
                system_message=ANALYSIS_SYSTEM_MESSAGE,
                user_message=build_analysis_prompt(project, issue),
                json_mode=True,
            )
            if not content:
                raise AIServiceError("Empty response from OpenAI API")
            return parse_analysis(content)
        except AIServiceError as e:
            logger.error("Design issue analysis failed", project_id=project.id, error=str(e))
            return DesignIssueAnalysis(
                analysis=ANALYSIS_ERROR_TEXT, suggestions=list(FALLBACK_SUGGESTIONS)
            )

    async def _call_with_retry(
        self, model: str, system_message: str, user_message: str, json_mode: bool = False
    ) -> str:
        """Call OpenAI API with retry logic for transient failures."""
        if self.client is None:
            raise AIServiceError("OPENAI_API_KEY not configured", recoverable=False)

        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        last_error = None
        max_retries = max(1, self.settings.OPENAI_MAX_RETRIES)

        for attempt in range(max_retries):
            try:
                response = await self.client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_message},
                        {"role": "user", "content": user_message},
                    ],
                    max_tokens=self.settings.OPENAI_MAX_TOKENS,
                    temperature=self.settings.OPENAI_TEMPERATURE,
                    **kwargs,
                )

                if not response.choices or not response.choices[0].message.content:
                    return ""

                result = response.choices[0].message.content.strip()
                logger.info(
                    "OpenAI API call successful",
                    model=model,
                    attempt=attempt + 1,
                    response_length=len(result),
                )
                return result

            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)
                logger.warning("OpenAI rate limit hit, retrying", attempt=attempt + 1, wait_time=wait_time)
                if attempt < max_retries - 1:
                    await asyncio.sleep(wait_time)

            except openai.APITimeoutError as e:
                last_error = e
                logger.warning("OpenAI API timeout, retrying", attempt=attempt + 1)

            except openai.APIError as e:
                last_error = e
                status_code = getattr(e, "status_code", None)
                if status_code is not None and 400 <= status_code < 500:
                    logger.error("OpenAI client error (not retrying)", error=str(e))
                    break
                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

        raise AIServiceError(f"OpenAI API failed: {last_error}") from last_error
