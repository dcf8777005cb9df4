from __future__ import annotations

# Supported submission languages.
#
# Every `Language` member must have a `LanguageProfile` entry; import fails
# otherwise.

from dataclasses import dataclass
from enum import Enum


class Language(str, Enum):
    CPP = "cpp"
    C = "c"
    PY = "py"
    JAVA = "java"


@dataclass(frozen=True)
class LanguageProfile:
    display_name: str
    editor_mode: str
    source_name: str
    template: str
    # Command lines run inside the scratch dir; `None` means interpreted.
    compile_cmd: tuple[str, ...] | None
    run_cmd: tuple[str, ...]


_CPP_TEMPLATE = """#include <iostream>

int main() {
    std::cout << "Hello World!";
    return 0;
}
"""

_C_TEMPLATE = """#include <stdio.h>
int main() {
   // printf() displays the string inside quotation
   printf("Hello, World!");
   return 0;
}"""

_PY_TEMPLATE = "print('Hello, world!')"

_JAVA_TEMPLATE = """import java.util.Scanner;

class Main
{
    public static void main(String []args)
    {
        System.out.println("My First Java Program.");
    }
}"""


LANGUAGE_PROFILES: dict[Language, LanguageProfile] = {
    Language.CPP: LanguageProfile(
        display_name="C++",
        editor_mode="cpp",
        source_name="main.cpp",
        template=_CPP_TEMPLATE,
        compile_cmd=("g++", "-std=c++17", "-O2", "-pipe", "main.cpp", "-o", "prog"),
        run_cmd=("./prog",),
    ),
    Language.C: LanguageProfile(
        display_name="C",
        editor_mode="cpp",
        source_name="main.c",
        template=_C_TEMPLATE,
        compile_cmd=("gcc", "-std=c11", "-O2", "-pipe", "main.c", "-o", "prog", "-lm"),
        run_cmd=("./prog",),
    ),
    Language.PY: LanguageProfile(
        display_name="Python",
        editor_mode="python",
        source_name="main.py",
        template=_PY_TEMPLATE,
        compile_cmd=None,
        run_cmd=("python3", "main.py"),
    ),
    Language.JAVA: LanguageProfile(
        display_name="Java",
        editor_mode="java",
        source_name="Main.java",
        template=_JAVA_TEMPLATE,
        compile_cmd=("javac", "Main.java"),
        run_cmd=("java", "-cp", ".", "Main"),
    ),
}


_missing = [lang.value for lang in Language if lang not in LANGUAGE_PROFILES]
if _missing:
    raise RuntimeError(f"language_profile_missing: {', '.join(_missing)}")


def get_profile(language: Language) -> LanguageProfile:
    return LANGUAGE_PROFILES[language]

