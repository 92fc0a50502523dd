from app.pms.composition import FeatureModule
from app.pms.modules.report.admin import bp
from app.pms.modules.report.service import ReportService

MODULE = FeatureModule(
    name="report",
    imports=("persistence",),
    blueprints=((bp, "/api/reports"),),
    providers={"report": lambda ctx: ReportService(ctx.require("persistence", "db"))},
    exports=("report",),
)
