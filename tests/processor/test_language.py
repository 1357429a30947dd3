import pytest

from babelcore.processor.language import detect_language


@pytest.mark.parametrize("text, expected", [
    ("The cat is on the table and the dog is in the garden with the children.", "en"),
    ("El perro de los vecinos y el gato de la casa duermen en el jardín con los niños.", "es"),
    ("Le chat est dans la maison et les enfants sont dans le jardin pour jouer.", "fr"),
    ("Der Hund und die Katze sind nicht in dem Haus, sondern auf der Straße mit den Kindern.", "de"),
    ("これは日本語の文章です。とても短いです。", "ja"),
    ("이것은 한국어 문장입니다.", "ko"),
    ("这是一个中文句子，没有假名。", "zh"),
    ("Это предложение написано по-русски.", "ru"),
])
def test_detecta_idioma(text, expected):
    assert detect_language(text) == expected


@pytest.mark.parametrize("text", ["", "12345 !!! ...", "Hola"])
def test_sin_evidencia_devuelve_none(text):
    assert detect_language(text) is None
