from repositories.study_guides import StudyGuideRepository, SORT_KEYS

__all__ = ["StudyGuideRepository", "SORT_KEYS"]
