from .trainers import Trainer, TrainerAvailability
from .availability import TrainerAvailabilitySlot
