# 发给用户的文案 (乌兹别克语)。含 HTML 标记的文案发送时使用 ParseMode.HTML

START = (
    "👋 Salom!\n\n"
    "Men ⏰ <b>aqlli eslatma botman</b>.\n"
    "Menga vaqt bilan yozing.\n\n"
    "<i>Masalan:</i>\n<code>12:00 da darsim bor</code>\n<code>07:00 da menga uyg‘onishni eslatib yubor</code>"
)

LIST_BUTTON = "📋 Kutilayotgan"

ASK_FOR_TIME = "🙂 Iltimos, vaqtni ham yozing."
TIME_PASSED = "⚠️ Bu vaqt allaqachon o‘tib ketgan.\nErtaga shu vaqtda eslataymi?"
YES = "Ha"
NO = "Yo‘q"

CREATED = "✅ Eslatma qo‘shildi\n🕒 {time}\n📝 {task}"
CREATED_TOMORROW = "✅ Eslatma ertangi kunga qo‘shildi\n🕒 {time}\n📝 {task}"
CONFIRMATION_DECLINED = "❎ Eslatma bekor qilindi"
CONFIRMATION_STALE = "🙂 Bu so‘rov endi faol emas. Vaqtni qaytadan yozing."

PENDING_HEADER = "📋 <b>Kutilayotgan bildirishnomalar:</b>\n\n"
PENDING_LINE = "🕒 {time} — {task} → /ochir_{id}\n"
PENDING_EMPTY = "🙂 Sizda kutilayotgan xabarlar yo‘q"

DELETED = "🗑 Eslatma o‘chirildi"
NOT_FOUND = "🙂 Bunday eslatma topilmadi"

DELIVERY = "🔔 <b>ESLATMA!</b>\n{task}\n<i>soat {time} bo‘ldi</i>"

APOLOGY = "😔 Kechirasiz, xatolik yuz berdi. Birozdan so‘ng qayta urinib ko‘ring."
