from typing import Optional, Type, TypeVar

import requests
from pydantic import BaseModel

CONTENT_TYPE_XML = "application/xml; charset=utf-8"


class Dto(BaseModel):
    pass


T = TypeVar("T", bound=Dto)


def map_from_json(json_data: dict, cls: Type[T]) -> T:
    return cls(**json_data)


def api_request(
    method: str,
    url: str,
    auth_token: str,
    data: Optional[bytes] = None,
    content_type: str = CONTENT_TYPE_XML,
    response_cls: Optional[Type[T]] = None,
) -> Optional[T]:
    headers = {
        "Authorization": f"Bearer {auth_token}",
        "Content-Type": content_type,
    }
    resp = requests.request(method=method, url=url, data=data, headers=headers)
    resp.raise_for_status()
    if response_cls:
        return map_from_json(json_data=resp.json(), cls=response_cls)
    return None


class ReportsResponse(Dto):
    report_id: int


class APIReportPublisher:
    def __init__(self, url: str, auth_token: str) -> None:
        self.url = url
        self.auth_token = auth_token

    def publish_report(self, report: bytes) -> int:
        response: ReportsResponse = api_request(
            method="POST",
            url=self.url,
            auth_token=self.auth_token,
            data=report,
            response_cls=ReportsResponse,
        )
        return response.report_id
