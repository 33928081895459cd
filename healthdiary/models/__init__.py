from .user import User
from .catalog import Symptom, Medication
from .health_record import HealthRecord, SymptomRecord, MedicationRecord
from .analysis import Analysis
from .report import Report
from .kp_index import KpIndex
