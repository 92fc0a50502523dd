from app.pms.composition import FeatureModule
from app.pms.modules.dashboard.admin import bp
from app.pms.modules.dashboard.service import DashboardService

MODULE = FeatureModule(
    name="dashboard",
    imports=("persistence",),
    blueprints=((bp, "/api/dashboard"),),
    providers={"dashboard": lambda ctx: DashboardService(ctx.require("persistence", "db"))},
    exports=("dashboard",),
)
