"""Entity to DTO mapping driven by discovered `MapperProfile`s."""

from typing import Dict, Iterable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from modular_backend.bootstrap import InitialiserBag, MapperProfile, SingletonLifecycle

T = TypeVar("T", bound=BaseModel)


class ObjectMapper(SingletonLifecycle):
    """Maps objects onto pydantic models.

    Profiles are looked up by `(source, target)`; a source matches when the
    object is an instance of it. Without a profile the target model is
    validated from the object's attributes.
    """

    def __init__(self, bag: InitialiserBag):
        self._profiles: Dict[Tuple[type, type], MapperProfile] = {}
        for profile_cls, _description in bag.mapper_profiles:
            self.add_profile(profile_cls())

    def add_profile(self, profile: MapperProfile) -> None:
        self._profiles[(profile.source, profile.target)] = profile

    def profile_for(self, source: type, target: type) -> Optional[MapperProfile]:
        for cls in source.__mro__:
            profile = self._profiles.get((cls, target))
            if profile is not None:
                return profile
        return None

    def map(self, obj, target: Type[T]) -> T:
        if obj is None:
            raise ValueError("cannot map None")
        profile = self.profile_for(type(obj), target)
        if profile is not None:
            return profile.map(obj)
        return target.model_validate(obj, from_attributes=True)

    def map_all(self, items: Iterable, target: Type[T]) -> list:
        return [self.map(item, target) for item in items]
