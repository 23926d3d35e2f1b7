import platform
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict

PROPERTY_MANUFACTURER = "device.manufacturer"
PROPERTY_MODEL = "device.model"
PROPERTY_API_LEVEL = "device.apiLevel"

# Emission order in the report
PROPERTY_NAMES: Tuple[str, ...] = (
    PROPERTY_MANUFACTURER,
    PROPERTY_MODEL,
    PROPERTY_API_LEVEL,
)


class DeviceProperties(BaseModel):
    model_config = ConfigDict(frozen=True)

    manufacturer: str = ""
    model: str = ""
    api_level: str = ""

    def as_properties(self) -> Dict[str, str]:
        return {
            PROPERTY_MANUFACTURER: self.manufacturer,
            PROPERTY_MODEL: self.model,
            PROPERTY_API_LEVEL: self.api_level,
        }


def host_device_properties() -> DeviceProperties:
    return DeviceProperties(
        manufacturer=platform.system(),
        model=platform.machine(),
        api_level=platform.release(),
    )
