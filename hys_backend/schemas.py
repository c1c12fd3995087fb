from typing import Literal

from pydantic import BaseModel, ConfigDict


class PersonRead(BaseModel):
    tc: str = ""
    ad: str = ""
    soyad: str = ""
    unvan: str = ""
    gorev: str = ""
    sube: str = ""
    telefon: str = ""
    insan_id: str = ""
    vardiya_baslangic: str = ""
    giris_saati: str = ""

    model_config = ConfigDict(from_attributes=True)


class PersonListAllResponse(BaseModel):
    items: list[PersonRead]
    total: int


class PersonListPageResponse(BaseModel):
    page: int
    limit: int
    total: int
    items: list[PersonRead]


class PersonDetailResponse(BaseModel):
    tc: str
    ad: str
    soyad: str
    sube_adi: str
    konum_tipi: Literal["GENEL_MERKEZ", "MAGAZA", "BILINMIYOR"]


class ShiftWarningRead(BaseModel):
    tc: str
    ad: str
    soyad: str
    vardiya_baslangic: str
    giris_saati: str

    model_config = ConfigDict(from_attributes=True)


class ShiftWarningsResponse(BaseModel):
    check_time: str
    grace_minutes: int
    target_shift_hour: str
    missing_entry_count: int
    items: list[ShiftWarningRead]


class HealthResponse(BaseModel):
    status: str
    message: str


class VersionResponse(BaseModel):
    service: str
    version: str
