from sqlmodel import Field, SQLModel


class PatientBase(SQLModel):
    name: str
    email: str | None = None
    phone_number: str | None = None
    # Unique per clinic when present
    cpf: str | None = Field(default=None, max_length=14, index=True)


class Patient(PatientBase, table=True):
    __tablename__ = "patients"
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(index=True)


class PatientCreate(PatientBase):
    pass


class PatientPublic(PatientBase):
    id: int
    clinic_id: int
