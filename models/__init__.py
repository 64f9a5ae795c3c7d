from .models import (
    User, StudyGuide, StudyGuideVersion,
    study_guide_contributor, study_guide_upvote,
    FlashcardTypeEnum, default_user_settings,
)
