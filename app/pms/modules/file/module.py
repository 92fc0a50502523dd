from app.pms.composition import FeatureModule
from app.pms.modules.file.admin import bp
from app.pms.modules.file.service import FileService

MODULE = FeatureModule(
    name="file",
    imports=("persistence", "storage"),
    blueprints=((bp, "/api/files"),),
    providers={
        "files": lambda ctx: FileService(ctx.require("persistence", "db"), ctx.require("storage", "storage")),
    },
)
