from app.pms.composition import FeatureModule
from app.pms.modules.calendar.admin import bp
from app.pms.modules.calendar.rrule import RRuleService
from app.pms.modules.calendar.service import CalendarService

MODULE = FeatureModule(
    name="calendar",
    imports=("persistence",),
    blueprints=((bp, "/api/events"),),
    providers={
        "rrule": lambda ctx: RRuleService(),
        "events": lambda ctx: CalendarService(ctx.require("persistence", "db"), ctx.get("rrule")),
    },
    exports=("rrule",),
)
