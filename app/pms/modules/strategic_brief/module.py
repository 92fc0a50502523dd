from app.pms.composition import FeatureModule
from app.pms.modules.strategic_brief.admin import bp
from app.pms.modules.strategic_brief.service import StrategicBriefService

MODULE = FeatureModule(
    name="strategic_brief",
    imports=("persistence",),
    blueprints=((bp, "/api/strategic-briefs"),),
    providers={
        "strategic_brief": lambda ctx: StrategicBriefService(ctx.require("persistence", "db")),
    },
    exports=("strategic_brief",),
)
