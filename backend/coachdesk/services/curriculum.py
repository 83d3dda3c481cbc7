"""Curated LGS subject and topic lists offered when a coach creates a task."""

READING_SUBJECT = "Kitap Okuma"

LGS_SUBJECTS: dict[str, list[str]] = {
    "Türkçe": [
        "Sözcükte Anlam",
        "Cümlede Anlam",
        "Parçada Anlam",
        "Fiilimsiler",
        "Cümlenin Ögeleri",
        "Fiilde Çatı",
        "Cümle Türleri",
        "Anlatım Bozuklukları",
        "Yazım Kuralları",
        "Noktalama İşaretleri",
        "Metin Türleri",
        "Söz Sanatları",
    ],
    "Matematik": [
        "Çarpanlar ve Katlar",
        "Üslü İfadeler",
        "Kareköklü İfadeler",
        "Veri Analizi",
        "Basit Olayların Olma Olasılığı",
        "Cebirsel İfadeler ve Özdeşlikler",
        "Doğrusal Denklemler",
        "Eşitsizlikler",
        "Üçgenler",
        "Eşlik ve Benzerlik",
        "Dönüşüm Geometrisi",
        "Geometrik Cisimler",
    ],
    "Fen Bilimleri": [
        "Mevsimler ve İklim",
        "DNA ve Genetik Kod",
        "Basınç",
        "Madde ve Endüstri",
        "Basit Makineler",
        "Canlılar ve Enerji İlişkileri",
        "Madde Döngüleri ve Çevre Sorunları",
        "Elektrik Yükleri ve Elektrik Enerjisi",
    ],
    "T.C. İnkılap Tarihi ve Atatürkçülük": [
        "Bir Kahraman Doğuyor",
        "Milli Uyanış: Bağımsızlık Yolunda Atılan Adımlar",
        "Milli Bir Destan: Ya İstiklal Ya Ölüm!",
        "Atatürkçülük ve Çağdaşlaşan Türkiye",
        "Demokratikleşme Çabaları",
        "Atatürk Dönemi Dış Politika",
        "Atatürk'ün Ölümü ve Sonrası",
    ],
    "Din Kültürü ve Ahlak Bilgisi": [
        "Kader İnancı",
        "Zekat ve Sadaka",
        "Din ve Hayat",
        "Hz. Muhammed'in Örnekliği",
        "Kur'an-ı Kerim ve Özellikleri",
    ],
    "İngilizce": [
        "Friendship",
        "Teen Life",
        "In the Kitchen",
        "On the Phone",
        "The Internet",
        "Adventures",
        "Tourism",
        "Chores",
        "Science",
        "Natural Forces",
    ],
}


def catalog() -> list[dict[str, object]]:
    entries = [{"name": name, "topics": list(topics)} for name, topics in LGS_SUBJECTS.items()]
    # Reading tasks use a page count as their topic
    entries.append({"name": READING_SUBJECT, "topics": []})
    return entries
