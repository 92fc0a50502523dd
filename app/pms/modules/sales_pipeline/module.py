from app.pms.composition import FeatureModule
from app.pms.modules.sales_pipeline.admin import bp
from app.pms.modules.sales_pipeline.service import SalesPipelineService

MODULE = FeatureModule(
    name="sales_pipeline",
    imports=("persistence", "project"),
    blueprints=((bp, "/api/sales-pipeline"),),
    providers={
        "sales_pipeline": lambda ctx: SalesPipelineService(
            ctx.require("persistence", "db"),
            ctx.require("project", "projects"),
        ),
    },
    exports=("sales_pipeline",),
)
