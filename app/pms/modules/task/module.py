from app.pms.composition import FeatureModule
from app.pms.modules.task.admin import bp
from app.pms.modules.task.service import TaskService

MODULE = FeatureModule(
    name="task",
    imports=("persistence",),
    blueprints=((bp, "/api/tasks"),),
    providers={"tasks": lambda ctx: TaskService(ctx.require("persistence", "db"))},
)
