from app.pms.composition import FeatureModule
from app.pms.web.views import bp

MODULE = FeatureModule(
    name="web",
    imports=("persistence", "dashboard", "project"),
    blueprints=((bp, "/dashboard"),),
    providers={
        "dashboard": lambda ctx: ctx.require("dashboard", "dashboard"),
        "projects": lambda ctx: ctx.require("project", "projects"),
    },
)
