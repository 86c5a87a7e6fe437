import sys
from types import SimpleNamespace

from modular_backend.bootstrap import InitialiserBag, StartupLog, build_host, request_scope
from modular_backend.main import app
from modular_backend.modules.base.mapping import ObjectMapper
from modular_backend.modules.base.persistence import PreCommitService, PreCommitStrategy
from modular_backend.modules.sys.controllers import router as sys_router
from modular_backend.modules.sys.mapping import SessionProfile

host = app.state.host


def _fake_settings(name):
    return SimpleNamespace(MODULES_PACKAGE=name, MODULE_PACKAGE_PREFIXES=(name,), MODULES_DIR="")


def test_build_host_runs_both_phases(fake_modules):
    host_ = build_host(_fake_settings(fake_modules))
    services = sys.modules[f"{fake_modules}.alpha.services"]
    consumers = sys.modules[f"{fake_modules}.beta.consumers"]

    assert services.AlphaInitialiser.calls == ["before", "Hello after"]
    assert host_.provider.is_registered(services.Extra)
    with request_scope():
        assert host_.provider.resolve(consumers.Welcome).message() == "Hello world"
    assert host_.provider.resolve(InitialiserBag) is host_.bag
    assert host_.log.is_complete


def test_failing_configurer_is_logged_and_skipped(fake_modules):
    log = StartupLog()
    host_ = build_host(_fake_settings(fake_modules), log=log)
    errors = [e for e in log.entries if e.level == "ERROR"]
    assert [e.tag for e in errors] == ["phase2"]
    assert "configurer exploded" in errors[0].message
    assert log.summary().error_count == 1
    # later phase 2 steps still ran
    services = sys.modules[f"{fake_modules}.alpha.services"]
    assert "Hello after" in services.AlphaInitialiser.calls
    assert host_.log is log


def test_phase_one_precedes_phase_two():
    messages = [e.message for e in host.log.entries]
    assert messages.index("=== PHASE 1: REGISTERING SERVICES ===") < messages.index("=== PHASE 2: CONFIGURING SERVICES ===")
    assert messages[-1] == "=== STARTUP COMPLETE ==="
    assert host.log.entries[-1].timestamp <= host.log.completed_at


def test_application_modules_are_discovered_in_dependency_order():
    modules = host.bag.modules
    assert len(modules) == len(set(modules))
    assert modules.index("modular_backend.modules.base.models") < modules.index("modular_backend.modules.sys.models")
    assert modules.index("modular_backend.modules.base.services") < modules.index("modular_backend.modules.sys.application")
    assert all(name.startswith("modular_backend.modules") for name in modules)


def test_application_startup_has_no_errors():
    summary = host.log.summary()
    assert summary.error_count == 0
    assert summary.total_entries == len(host.log.entries)
    assert summary.entries_by_tag["phase2"] >= 2


def test_contributions_reach_the_bag():
    assert sys_router in host.bag.routers
    assert SessionProfile in [profile for profile, _ in host.bag.mapper_profiles]
    configured = {cls.__name__ for cls in host.bag.entity_configurations}
    assert {"ApplicationSettingConfiguration", "SystemLanguageConfiguration"} <= configured


def test_strategies_are_collected_into_the_pre_commit_service():
    pre_commit = host.provider.resolve(PreCommitService)
    names = {type(s).__name__ for s in pre_commit.strategies}
    assert names == {"TimestampPreCommitStrategy", "AuditingPreCommitStrategy", "TenantPreCommitStrategy"}
    assert len(host.provider.resolve_all(PreCommitStrategy)) == 3


def test_singletons_are_shared():
    assert host.provider.resolve(ObjectMapper) is host.provider.resolve(ObjectMapper)
