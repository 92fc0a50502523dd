from app.pms.composition import FeatureModule
from app.pms.modules.project.admin import bp, phases_bp
from app.pms.modules.project.phases import ProjectPhaseService
from app.pms.modules.project.service import ProjectService

MODULE = FeatureModule(
    name="project",
    imports=("persistence", "strategic_brief"),
    blueprints=(
        (bp, "/api/projects"),
        (phases_bp, "/api/projects/<project_id>/phases"),
    ),
    # "phases" is declared first so the project service can take it from its own module.
    providers={
        "phases": lambda ctx: ProjectPhaseService(ctx.require("persistence", "db")),
        "projects": lambda ctx: ProjectService(
            ctx.require("persistence", "db"),
            phases=ctx.get("phases"),
            briefs=ctx.require("strategic_brief", "strategic_brief"),
        ),
    },
    exports=("projects", "phases"),
)
