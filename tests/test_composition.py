import pytest
from flask import Blueprint, Flask

from app.pms.composition import CompositionError, FeatureModule, compose_modules, module_provider


def _app():
    return Flask(__name__)


def test_providers_are_built_once_in_dependency_order():
    built = []

    def make_db(ctx):
        built.append("db")
        return object()

    def make_repo(ctx):
        built.append("repo")
        return ("repo", ctx.require("persistence", "db"))

    app = _app()
    registry = compose_modules(
        app,
        [
            FeatureModule(name="repo", imports=("persistence",), providers={"repo": make_repo}, exports=("repo",)),
            FeatureModule(name="persistence", providers={"db": make_db}, exports=("db",)),
        ],
    )
    assert built == ["db", "repo"]
    assert registry.order == ["persistence", "repo"]
    assert registry.instance("repo", "repo")[1] is registry.instance("persistence", "db")
    with app.app_context():
        assert module_provider("repo", "repo") is registry.instance("repo", "repo")


def test_duplicate_module_is_rejected():
    with pytest.raises(CompositionError, match="Duplicate module"):
        compose_modules(_app(), [FeatureModule(name="a"), FeatureModule(name="a")])


def test_unknown_import_is_rejected():
    with pytest.raises(CompositionError, match="unknown module 'ghost'"):
        compose_modules(_app(), [FeatureModule(name="a", imports=("ghost",))])


def test_import_cycle_is_rejected():
    with pytest.raises(CompositionError, match="Import cycle"):
        compose_modules(
            _app(),
            [
                FeatureModule(name="a", imports=("b",)),
                FeatureModule(name="b", imports=("c",)),
                FeatureModule(name="c", imports=("a",)),
            ],
        )


def test_exports_must_be_provided():
    with pytest.raises(CompositionError, match="exports unknown providers"):
        compose_modules(_app(), [FeatureModule(name="a", exports=("svc",))])


def test_consuming_a_non_exported_provider_fails():
    modules = [
        FeatureModule(name="a", providers={"secret": lambda ctx: 1}),
        FeatureModule(name="b", imports=("a",), providers={"x": lambda ctx: ctx.require("a", "secret")}),
    ]
    with pytest.raises(CompositionError, match="does not export"):
        compose_modules(_app(), modules)


def test_consuming_an_undeclared_import_fails():
    modules = [
        FeatureModule(name="a", providers={"svc": lambda ctx: 1}, exports=("svc",)),
        FeatureModule(name="b", providers={"x": lambda ctx: ctx.require("a", "svc")}),
    ]
    with pytest.raises(CompositionError, match="without importing"):
        compose_modules(_app(), modules)


def test_controller_declared_twice_is_rejected():
    bp = Blueprint("shared", __name__)
    with pytest.raises(CompositionError, match="Controller 'shared'"):
        compose_modules(
            _app(),
            [FeatureModule(name="a", blueprints=((bp, "/a"),)), FeatureModule(name="b", blueprints=((bp, "/b"),))],
        )


def test_compose_runs_once_per_app():
    app = _app()
    compose_modules(app, [FeatureModule(name="a")])
    with pytest.raises(CompositionError, match="already composed"):
        compose_modules(app, [FeatureModule(name="a")])


def test_running_app_registers_every_controller(app):
    registry = app.extensions["pms.modules"]
    assert registry.all_controllers() == [
        bp for name in registry.order for bp in registry.controllers(name)
    ]
    assert set(registry.all_controllers()) == {
        "calendar",
        "dashboard",
        "file",
        "project",
        "project_phases",
        "report",
        "task",
        "sales_pipeline",
        "strategic_brief",
        "web",
    }
    assert registry.order.index("persistence") < registry.order.index("project")
    assert registry.order.index("project") < registry.order.index("web")
    assert app.extensions["pms.providers"] == ("theme", "query")
