import logging

from course_materials.config import Settings
from course_materials.handler import UploadBroker

# Configuration is read and validated once per cold start
SETTINGS = Settings.from_env()
SETTINGS.validate()

logger = logging.getLogger()
logger.setLevel(SETTINGS.log_level)

broker = UploadBroker(SETTINGS)


def handler(event, context):
    """
    Expects an API Gateway event whose JSON body looks like:
    {
        "action": "generate-url" | "save-metadata" | "upload-material",
        "courseId": "C1",
        ...
    }
    """
    return broker.handle(event)
