"""Classes and students of the institute."""

from pydantic import BaseModel, ConfigDict, Field

from .base import DaybookError, NotFound, new_id


class InstituteInfo(BaseModel):
    """Name and address of the institute keeping the books."""

    model_config = ConfigDict(extra="forbid")

    name: str = "My Institute"
    address: str = "123 Education Lane"


class ClassInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str


class Student(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    student_code: str
    name: str
    father_name: str = ""
    mother_name: str = ""
    class_id: str


class Roster(BaseModel):
    model_config = ConfigDict(extra="forbid")

    classes: list[ClassInfo] = []
    students: list[Student] = []

    def get_class(self, class_id: str) -> ClassInfo:
        for cls in self.classes:
            if cls.id == class_id:
                return cls
        raise NotFound(f"Class {class_id} not found.")

    def get_student(self, student_id: str) -> Student:
        for student in self.students:
            if student.id == student_id:
                return student
        raise NotFound(f"Student {student_id} not found.")

    def students_in(self, class_id: str) -> list[Student]:
        return [s for s in self.students if s.class_id == class_id]

    def _check_name_is_free(self, name: str, class_id: str | None = None):
        if any(c.name == name and c.id != class_id for c in self.classes):
            raise DaybookError(f"Class {name} already exists.")

    def add_class(self, name: str) -> ClassInfo:
        self._check_name_is_free(name)
        cls = ClassInfo(name=name)
        self.classes.append(cls)
        return cls

    def rename_class(self, class_id: str, name: str) -> str:
        """Rename class and return its previous name."""
        cls = self.get_class(class_id)
        self._check_name_is_free(name, class_id)
        old_name, cls.name = cls.name, name
        return old_name

    def remove_class(self, class_id: str) -> tuple[ClassInfo, list[Student]]:
        """Remove class with its students."""
        cls = self.get_class(class_id)
        removed = self.students_in(class_id)
        self.classes.remove(cls)
        self.students = [s for s in self.students if s.class_id != class_id]
        return cls, removed

    def add_student(self, student_code: str, name: str, class_id: str, **fields) -> Student:
        self.get_class(class_id)
        student = Student(student_code=student_code, name=name, class_id=class_id, **fields)
        self.students.append(student)
        return student

    def rename_student(self, student_id: str, name: str) -> Student:
        student = self.get_student(student_id)
        student.name = name
        return student

    def move_student(self, student_id: str, class_id: str) -> Student:
        self.get_class(class_id)
        student = self.get_student(student_id)
        student.class_id = class_id
        return student

    def remove_student(self, student_id: str) -> Student:
        student = self.get_student(student_id)
        self.students.remove(student)
        return student
