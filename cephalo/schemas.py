from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

LANDMARK_CODES = ("S", "N", "A", "B")

class Point(BaseModel):
    # percentage of image width / height
    model_config = ConfigDict(frozen=True)
    x: float
    y: float

class LandmarkSet(BaseModel):
    model_config = ConfigDict(frozen=True)
    S: Point
    N: Point
    A: Point
    B: Point

class ImageDimensions(BaseModel):
    model_config = ConfigDict(frozen=True)
    width: int = Field(800, gt=0)
    height: int = Field(1000, gt=0)

class Criteria(BaseModel):
    model_config = ConfigDict(frozen=True)
    anb: bool
    overjet: bool
    age: Optional[bool] = None  # None when age unknown

class SuitabilityVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)
    suitable: bool
    message: str
    criteria: Criteria

class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)
    landmarks: LandmarkSet
    anb: float
    overjet: float
    suitable: bool
    message: str = ""
    criteria: Optional[Criteria] = None
    model: Optional[str] = None
    image: Optional[ImageDimensions] = None

    def summary(self) -> "AnalysisSummary":
        return AnalysisSummary(anb=self.anb, overjet=self.overjet, suitable=self.suitable,
                               message=self.message, criteria=self.criteria)

class AnalysisSummary(BaseModel):
    anb: float
    overjet: float
    suitable: bool
    message: str
    criteria: Optional[Criteria] = None

class AnalyzeResponse(BaseModel):
    landmarks: LandmarkSet
    analysis: AnalysisSummary
    model: Optional[str] = None
    image: Optional[ImageDimensions] = None

class ReanalyzeRequest(BaseModel):
    landmarks: LandmarkSet
    overjet: float
    age: Optional[int] = None

class ScanRecord(BaseModel):
    # outbound document for the storage collaborator
    model_config = ConfigDict(populate_by_name=True)
    patient: str
    patient_age: Optional[str] = Field(None, alias="patientAge")
    patient_gender: Optional[str] = Field(None, alias="patientGender")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    landmarks: LandmarkSet
    analysis: AnalysisSummary

class ScanRecordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    patient: str
    patient_age: Optional[str] = Field(None, alias="patientAge")
    patient_gender: Optional[str] = Field(None, alias="patientGender")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    landmarks: LandmarkSet
    anb: float
    overjet: float

class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
