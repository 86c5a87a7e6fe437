"""Diagnostics: startup report, smoke tests and code-quality analysis."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from modular_backend import database
from modular_backend.bootstrap import InitialiserBag, ServiceProvider, SingletonLifecycle, StartupLog

from .schemas import (
    AnalysisCapabilitiesDto,
    AnalysisRuleDto,
    CodeAnalysisReportDto,
    CodeQualitySummaryDto,
    SmokeTestReportDto,
    SmokeTestResultDto,
    StartupDiagnosticsDto,
)
from .services import EnvironmentService

logger = logging.getLogger("modular_backend.diagnostics")


class CodeQualityAnalysisService(SingletonLifecycle):
    """Placeholder analysis; reports that no analysers are installed."""

    def __init__(self, environment: EnvironmentService):
        self.environment = environment

    def analyze(self) -> CodeAnalysisReportDto:
        return CodeAnalysisReportDto(
            analyzed_at=datetime.now(timezone.utc),
            summary=CodeQualitySummaryDto(
                status="Not Implemented",
                key_findings=["Code quality analysis is not yet implemented"],
                recommendations=["Install an analyser module to enable code quality reports"],
            ),
        )

    def get_cached_results(self) -> Optional[CodeAnalysisReportDto]:
        return None

    def is_analysis_available(self) -> bool:
        return False

    def get_capabilities(self) -> AnalysisCapabilitiesDto:
        return AnalysisCapabilitiesDto(
            is_enabled=False,
            environment=self.environment.environment_name,
            enabled_analyzers=[],
            rules=[
                AnalysisRuleDto(
                    id="NONE",
                    name="No analysers",
                    description="No code quality analysers are installed.",
                    category="System",
                )
            ],
        )


class StartupDiagnosticsService(SingletonLifecycle):
    """Reports on how the application started and whether it is usable."""

    def __init__(self, log: StartupLog, bag: InitialiserBag, provider: ServiceProvider):
        self.log = log
        self.bag = bag
        self.provider = provider

    def report(self, tag: Optional[str] = None) -> StartupDiagnosticsDto:
        entries = [e for e in self.log.entries if tag is None or e.tag == tag]
        return StartupDiagnosticsDto(
            summary=self.log.summary(),
            modules=list(self.bag.modules),
            services=list(self.bag.notes),
            entries=entries,
        )

    def is_started(self) -> bool:
        return self.log.is_complete

    def check_database(self) -> SmokeTestResultDto:
        try:
            with database.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            return SmokeTestResultDto(name="database", passed=False, detail=str(exc))
        return SmokeTestResultDto(name="database", passed=True)

    def run_smoke_tests(self) -> SmokeTestReportDto:
        """Run the checks; services are resolved, so call inside a request scope."""
        summary = self.log.summary()
        results: List[SmokeTestResultDto] = [
            SmokeTestResultDto(name="startup_complete", passed=self.log.is_complete),
            SmokeTestResultDto(
                name="startup_errors",
                passed=summary.error_count == 0,
                detail=f"{summary.error_count} errors",
            ),
            self.check_database(),
        ]
        failed = []
        for descriptor in self.bag.local_services:
            if descriptor.contract is not descriptor.implementation:
                continue
            try:
                self.provider.resolve(descriptor.contract)
            except Exception as exc:
                failed.append(f"{descriptor.implementation.__name__}: {exc}")
        results.append(
            SmokeTestResultDto(name="services_resolvable", passed=not failed, detail="; ".join(failed))
        )
        passed = all(r.passed for r in results)
        logger.info("smoke_tests passed=%s checks=%d", passed, len(results))
        return SmokeTestReportDto(passed=passed, results=results)
